"""Utility modules for gphoto2-config.

This package uses lazy imports via __getattr__ so that importing it does not
load cv2.

Available exports (lazy-loaded):
    ImageEncoder: Protocol for image encoding operations
    ImageDecoder: Protocol for image decoding operations
    CV2ImageEncoder: OpenCV-based encoder
    CV2ImageDecoder: OpenCV-based decoder
    decode_preview: Decode a liveview frame to an array

Example:
    from gphoto2_config.utils import decode_preview
    frame = decode_preview(camera.preview())
"""

__all__ = [
    "CV2ImageDecoder",
    "CV2ImageEncoder",
    "ImageDecoder",
    "ImageEncoder",
    "decode_preview",
]


def __getattr__(name: str) -> object:
    """Import image helpers on first access and cache them in module globals.

    Raises:
        AttributeError: If name is not a public export.
    """
    if name in __all__:
        from gphoto2_config.utils import image

        for export in __all__:
            globals()[export] = getattr(image, export)
        return globals()[name]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    return [*__all__, "__all__", "__doc__", "__name__", "__file__"]
