"""Building blocks for e-book conversion: hyphenation, JPEG quality, MOBI post-processing and EPUB packaging."""

__version__ = "0.1.0"