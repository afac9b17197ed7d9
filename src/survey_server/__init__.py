"""survey_server — FastAPI REST API for the adaptive survey SDK.

Exposes ``SurveyOrchestrator`` and ``PresetService`` as a stateless HTTP
API: sessions, question batches, answers, analyses, reports, presets and
the token-addressed preset admin view.
"""
