import base64
import io

from PIL import Image


def to_bytes(data: bytes | str) -> bytes:
    if isinstance(data, bytes | bytearray):
        return bytes(data)
    if data.startswith("data:"):
        data = data.split(",", 1)[1]
    return base64.b64decode(data)


def to_data_url(data: bytes | str, mime_type: str) -> str:
    encoded = base64.b64encode(to_bytes(data)).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def to_image(data: bytes | str) -> Image.Image:
    image = Image.open(io.BytesIO(to_bytes(data)))
    image.load()
    return image
