import io
import logging
import re
from datetime import datetime
from typing import Dict, List, Optional

from PIL import Image, ImageDraw, ImageFont

from date_utils import display_date, iso_day
from models import format_amount, initials, remaining_balance, total_paid

RECEIPT_SIZE = (800, 700)
ID_CARD_SIZE = (320, 460)

BRAND_BLUE = "#1e3a8a"
PLACEHOLDER_GREY = "#e5e7eb"
INITIALS_BG = "#667eea"
# Bitmap fonts rarely carry the rupee sign
CURRENCY = "Rs."


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", "_", (text or "").strip())


def receipt_filename(institute: str, student: Dict, fee: Dict) -> str:
    day = iso_day(fee.get('date')) or datetime.now().strftime("%Y-%m-%d")
    return f"{collapse_whitespace(institute)}_FeeReceipt_{collapse_whitespace(student.get('name'))}_{day}.png"


def id_card_filename(institute: str, student: Dict) -> str:
    suffix = f"Seat{student.get('seat_number')}" if student.get('seat_number') else "IDCard"
    return f"{collapse_whitespace(institute)}_IDCard_{collapse_whitespace(student.get('name'))}_{suffix}.png"


def _text(xy, text, size=16, bold=False, fill="#374151", anchor="ls") -> Dict:
    return {'op': 'text', 'xy': xy, 'text': str(text), 'size': size, 'bold': bold,
            'fill': fill, 'anchor': anchor}


def _rect(box, fill=None, outline=None, width=1, radius=0) -> Dict:
    return {'op': 'rect', 'box': box, 'fill': fill, 'outline': outline, 'width': width,
            'radius': radius}


def _line(start, end, fill="#374151", width=1) -> Dict:
    return {'op': 'line', 'points': [start, end], 'fill': fill, 'width': width}


def _photo(box, student: Dict, radius=10) -> Dict:
    # Initials stand in only when the student has no photo at all
    return {'op': 'photo', 'box': box, 'radius': radius,
            'initials': None if student.get('image') else initials(student.get('name', ""))}


def receipt_layout(institute: str, student: Dict, fee: Dict) -> List[Dict]:
    """Draw operations for a fee receipt, top to bottom."""
    width, height = RECEIPT_SIZE
    ops = [
        _rect((0, 0, width, height), fill="#ffffff"),
        _rect((20, 20, width - 20, height - 20), outline=BRAND_BLUE, width=3),
        _rect((20, 20, width - 20, 120), fill=BRAND_BLUE),
        _text((width / 2, 70), (institute or "").upper(), size=32, bold=True, fill="#ffffff", anchor="mm"),
        _text((width / 2, 155), "FEE RECEIPT", size=28, bold=True, fill="#1e293b", anchor="mm"),
        _text((60, 180), f"Receipt No: {fee.get('description', '')}"),
        _text((width - 60, 180), f"Date: {display_date(fee.get('date'))}", anchor="rs"),
        _line((60, 200), (width - 60, 200), fill=PLACEHOLDER_GREY, width=2),
    ]

    y = 240
    ops.append(_text((60, y), "Student Details:", size=18, bold=True, fill="#111827"))
    ops.append(_photo((640, 215, 740, 315), student))

    y += 35
    details = [
        (f"Name: {student.get('name', '')}", f"Seat No: {student.get('seat_number') or '-'}"),
        (f"Mobile: {student.get('mobile', '')}", f"Course: {student.get('course_name', '')}"),
        (f"Join Date: {display_date(student.get('join_date'))}", ""),
    ]
    for left, right in details:
        ops.append(_text((60, y), left))
        if right:
            ops.append(_text((400, y), right))
        y += 30

    y += 20
    ops.append(_rect((60, y, width - 60, y + 140), fill="#f3f4f6"))
    y += 30
    ops.append(_text((80, y), "Payment Details:", size=18, bold=True, fill="#111827"))
    y += 35
    ops.append(_text((80, y), f"Description: {fee.get('description', '')}"))
    y += 30
    ops.append(_text((80, y), "Payment Method: Cash/Online"))
    y += 30
    ops.append(_text((80, y), f"Amount Paid: {CURRENCY} {format_amount(fee.get('amount'))}",
                     size=20, bold=True, fill="#059669"))

    y += 50
    paid = total_paid(student)
    remaining = remaining_balance(student)
    ops.append(_text((60, y), f"Total Course Fees: {CURRENCY} {format_amount(student.get('total_fees'))}"))
    y += 25
    ops.append(_text((60, y), f"Total Paid: {CURRENCY} {format_amount(paid)}"))
    y += 25
    ops.append(_text((60, y), f"Remaining Balance: {CURRENCY} {format_amount(remaining)}",
                     bold=True, fill="#dc2626" if remaining > 0 else "#059669"))

    y += 30
    ops.append(_line((width - 200, y), (width - 60, y)))
    ops.append(_text((width - 180, y + 15), "Authorized Signature", size=12))
    return ops


def id_card_layout(institute: str, student: Dict) -> List[Dict]:
    width, height = ID_CARD_SIZE
    header_h = 60
    ops = [
        _rect((0, 0, width, height), fill="#ffffff"),
        _rect((15, 15, width - 15, height - 15), fill="#ffffff", outline="#cbd5e1", width=2, radius=16),
        _rect((15, 15, width - 15, 15 + header_h), fill=BRAND_BLUE),
        _text((width / 2, 15 + header_h / 2), (institute or "").upper(), size=18, bold=True,
              fill="#ffffff", anchor="mm"),
    ]

    photo_size = 120
    photo_x = width // 2 - photo_size // 2
    photo_y = header_h + 40
    ops.append(_photo((photo_x, photo_y, photo_x + photo_size, photo_y + photo_size), student))

    text_y = photo_y + photo_size + 40
    ops.append(_text((width / 2, text_y), student.get('name', ''), size=22, bold=True,
                     fill="#111827", anchor="ms"))
    text_y += 35

    details = [
        ("Seat No", str(student.get('seat_number') or '-')),
        ("Course", student.get('course_name', '')),
        ("Mobile", student.get('mobile', '')),
        ("Joining", display_date(student.get('join_date'))),
    ]
    for label, value in details:
        ops.append(_text((40, text_y), f"{label}:", bold=True))
        ops.append(_text((140, text_y), value, fill="#111827"))
        text_y += 40
    return ops


class CardRenderer:
    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._fonts = {}

    def _font(self, size: int, bold: bool = False):
        key = (size, bold)
        if key not in self._fonts:
            name = "DejaVuSans-Bold.ttf" if bold else "DejaVuSans.ttf"
            try:
                self._fonts[key] = ImageFont.truetype(name, size)
            except OSError:
                self._fonts[key] = ImageFont.load_default(size=size)
        return self._fonts[key]

    def render(self, layout: List[Dict], size, photo: Optional[bytes] = None) -> Image.Image:
        image = Image.new("RGB", size, "#ffffff")
        draw = ImageDraw.Draw(image)

        for op in layout:
            kind = op['op']
            if kind == 'rect':
                if op.get('radius'):
                    draw.rounded_rectangle(op['box'], radius=op['radius'], fill=op.get('fill'),
                                           outline=op.get('outline'), width=op.get('width', 1))
                else:
                    draw.rectangle(op['box'], fill=op.get('fill'), outline=op.get('outline'),
                                   width=op.get('width', 1))
            elif kind == 'line':
                draw.line(op['points'], fill=op['fill'], width=op['width'])
            elif kind == 'text':
                draw.text(op['xy'], op['text'], fill=op['fill'],
                          font=self._font(op['size'], op['bold']), anchor=op['anchor'])
            elif kind == 'photo':
                self._draw_photo(image, draw, op, photo)
        return image

    def _draw_photo(self, image: Image.Image, draw: ImageDraw.ImageDraw, op: Dict, photo: Optional[bytes]):
        x0, y0, x1, y1 = op['box']
        radius = op.get('radius', 0)
        draw.rounded_rectangle(op['box'], radius=radius, fill=PLACEHOLDER_GREY)

        if photo:
            try:
                with Image.open(io.BytesIO(photo)) as picture:
                    w, h = int(x1 - x0), int(y1 - y0)
                    resized = picture.convert("RGB").resize((w, h))
                mask = Image.new("L", (w, h), 0)
                ImageDraw.Draw(mask).rounded_rectangle((0, 0, w - 1, h - 1), radius=radius, fill=255)
                image.paste(resized, (int(x0), int(y0)), mask)
                return
            except (OSError, ValueError) as e:
                self.logger.warning(f"Could not decode student photo: {str(e)}")
                return

        if op.get('initials'):
            draw.rounded_rectangle(op['box'], radius=radius, fill=INITIALS_BG)
            draw.text(((x0 + x1) / 2, (y0 + y1) / 2), op['initials'], fill="#ffffff",
                      font=self._font(int((y1 - y0) * 0.4), True), anchor="mm")

    def to_png(self, image: Image.Image) -> bytes:
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()

    def fee_receipt(self, institute: str, student: Dict, fee: Dict, photo: Optional[bytes] = None) -> bytes:
        layout = receipt_layout(institute, student, fee)
        return self.to_png(self.render(layout, RECEIPT_SIZE, photo))

    def id_card(self, institute: str, student: Dict, photo: Optional[bytes] = None) -> bytes:
        layout = id_card_layout(institute, student)
        return self.to_png(self.render(layout, ID_CARD_SIZE, photo))


# Global instance for import
card_renderer = CardRenderer()
