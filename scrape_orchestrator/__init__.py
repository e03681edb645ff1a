"""
Scrape Orchestrator - filas de marcas e rotação de proxies sobre Redis.
"""

__version__ = "1.0.0"
