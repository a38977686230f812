# This file makes the 'agents' directory a Python package,
# allowing for clean imports of the agent classes.

from .objective_generation_agent import ObjectiveGenerationAgent
from .job_description_analysis_agent import JobDescriptionAnalysisAgent
from .responsibility_enhancement_agent import ResponsibilityEnhancementAgent

__all__ = [
    "ObjectiveGenerationAgent",
    "JobDescriptionAnalysisAgent",
    "ResponsibilityEnhancementAgent",
]
