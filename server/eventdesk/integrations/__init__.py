"""
Integration modules for Event Desk

Contains adapters and clients for external systems:
- E-signature providers (Assinafy)
"""
