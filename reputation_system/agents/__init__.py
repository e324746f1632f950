"""Pipeline stages of the brand reputation system.

- detection: scores observed posts against monitors and raises Threats
- verification: judges the claim behind a Threat against trusted evidence
- response: drafts corrective Responses and publishes them
- communication: notification channel shared by every stage
"""
