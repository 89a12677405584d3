"""Session-scoped conversion of presentations into per-slide PNG images.

Route handlers in server.py stay thin; this package owns the working
directories, the soffice/pdftoppm steps and the ZIP download.

Session IDs double as capability tokens: whoever holds one can read that
session's slides until it is deleted.
"""
