"""Config enrichment pipeline"""

from .workflow import BirdConfigPipeline, PipelineConfig, PipelineResult, apply_global_defaults, run_pipeline

__all__ = ["BirdConfigPipeline", "PipelineConfig", "PipelineResult", "apply_global_defaults", "run_pipeline"]
