"""
Assemble stage: one merged PDF per incoming document.

- A PDF directly under the input root is copied verbatim.
- A folder contributes every supported part (PDF pages, one page per image)
  in natural-sort order.
- A run-level index `_assemble_index.json` lists what was assembled.
"""

from .module import assemble_document, list_folder_parts, run_assemble_stage

__all__ = ["assemble_document", "list_folder_parts", "run_assemble_stage"]
