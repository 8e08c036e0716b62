"""DimStar - iterative multi-agent refinement orchestrator."""

__version__ = "1.0.0"
