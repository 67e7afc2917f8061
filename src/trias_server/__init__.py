"""trias_server — FastAPI REST API for the assessment SDK.

Drives one :class:`~trias_assessment.engine.AssessmentEngine` per calling
user and exposes catalog, assessment, results and report endpoints.
"""
