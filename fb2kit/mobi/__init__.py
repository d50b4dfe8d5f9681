"""Kindle MOBI/AZW3 record manipulation, splitting and thumbnail extraction."""