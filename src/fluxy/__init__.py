"""fluxy: generate images with FLUX models and view them inline in the terminal."""

__version__ = "0.1.0"
