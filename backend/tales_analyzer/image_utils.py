"""Screenshot optimization: compress before sending to the LLM."""
from PIL import Image
import io
import base64

JPEG_MEDIA_TYPE = "image/jpeg"


def _to_rgb(img: Image.Image) -> Image.Image:
    # JPEG has no alpha channel, flatten onto white
    if img.mode == 'RGBA':
        flat = Image.new('RGB', img.size, (255, 255, 255))
        flat.paste(img, mask=img.getchannel('A'))
        return flat
    return img if img.mode == 'RGB' else img.convert('RGB')


def optimize_screenshot(screenshot_bytes: bytes, max_width: int = 1280, max_height: int = 4000,
                        quality: int = 75) -> bytes:
    """
    Scale a full-page screenshot down to max_width, then keep only the
    top max_height pixels; the top of a portfolio carries most of what
    the model needs.
    """
    img = Image.open(io.BytesIO(screenshot_bytes))

    if img.width > max_width:
        scaled_height = int(img.height * max_width / img.width)
        img = img.resize((max_width, scaled_height), Image.LANCZOS)
    if img.height > max_height:
        img = img.crop((0, 0, img.width, max_height))

    out = io.BytesIO()
    _to_rgb(img).save(out, format='JPEG', quality=quality, optimize=True)
    return out.getvalue()


def screenshot_file_to_data_url(file_path: str, max_width: int = 1280, quality: int = 75) -> str:
    """Read a screenshot from disk and return it as a JPEG data URL."""
    with open(file_path, "rb") as f:
        optimized = optimize_screenshot(f.read(), max_width=max_width, quality=quality)
    return f"data:{JPEG_MEDIA_TYPE};base64,{base64.b64encode(optimized).decode()}"
