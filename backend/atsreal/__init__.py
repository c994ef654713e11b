"""ATS Real Score backend.

Scores a resume against a job description with a generative model, explains the
rating, suggests edits and answers follow-up questions about the pair.
"""
