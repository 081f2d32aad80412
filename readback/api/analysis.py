"""
Analysis endpoints.

- POST /analyze - single ATC instruction and pilot readback
- POST /analyze/dialogue - full transcript

Single-exchange analysis reads the live model's weights and records the
interaction in the model history. Dialogue analysis does not touch the model.
"""

import logging

from fastapi import APIRouter, HTTPException

from readback.core.dependencies import ModelStoreDep
from readback.models import AnalysisInput, AnalysisResult, DialogueAnalysis, DialogueInput
from readback.services.dialogue import analyze_dialogue

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/analyze", response_model=AnalysisResult)
async def analyze_exchange(data: AnalysisInput, store: ModelStoreDep) -> AnalysisResult:
    """
    Analyze one readback against its ATC instruction.

    Raises:
        HTTPException 400: If atc or pilot text is blank.
        HTTPException 500: If analysis fails.
    """
    if not data.atc.strip() or not data.pilot.strip():
        logger.warning("POST /analyze rejected: missing atc or pilot text")
        raise HTTPException(status_code=400, detail="Both atc and pilot text are required")

    try:
        return await store.analyze(data)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error analyzing exchange: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to analyze readback")


@router.post("/analyze/dialogue", response_model=DialogueAnalysis)
async def analyze_transcript(data: DialogueInput) -> DialogueAnalysis:
    """
    Analyze a whole transcript for phraseology and readback problems.

    Raises:
        HTTPException 400: If the transcript text is blank.
        HTTPException 500: If analysis fails.
    """
    if not data.text.strip():
        logger.warning("POST /analyze/dialogue rejected: empty transcript")
        raise HTTPException(status_code=400, detail="Transcript text is required")

    try:
        return analyze_dialogue(data.text, data.corpusType)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error analyzing dialogue: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to analyze dialogue")
