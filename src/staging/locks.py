from __future__ import annotations

import threading

# pdfium keeps global state and is not thread-safe: every pdfium call in this
# process (assembly merges and page renders) runs under this lock. Encoding and
# file I/O happen outside it.
PDFIUM_LOCK = threading.RLock()
