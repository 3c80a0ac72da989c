"""Backend package: DB models, pipelines, APIs.

Covers question generation over the training-material index, the blog
content pipeline, subscription entitlement and per-user study data.
"""
