"""
Vocabulary Audio Test Suite

Test coverage for:
    - Configuration, asset paths and the local asset store
    - Generation job client retry and polling budgets
    - Audio resolution chain and playback ordering
    - Batch export and card generation
    - FastAPI endpoints
"""
