"""
Prompt builders for text and page-image analysis.
"""

from gradeai.prompts.analysis import (
    ANALYSIS_SYSTEM_PROMPT,
    build_analysis_prompt,
    build_combined_text,
    format_evidence_block,
)
from gradeai.prompts.vision import VISION_SYSTEM_PROMPT, build_vision_prompt

__all__ = [
    'ANALYSIS_SYSTEM_PROMPT',
    'build_analysis_prompt',
    'build_combined_text',
    'format_evidence_block',
    'VISION_SYSTEM_PROMPT',
    'build_vision_prompt',
]
