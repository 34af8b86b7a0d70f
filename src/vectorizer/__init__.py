"""
vectorizer - indexador de proyectos para bases de datos vectoriales.

Recorre un proyecto, fragmenta cada archivo de texto, calcula embeddings con un
modelo local y los sube a una colección de Qdrant.

Stack:
- Python + sentence-transformers (modelo de embeddings)
- Qdrant (base de datos vectorial)
- FastMCP (búsqueda expuesta como MCP server)
- YAML (archivos de configuración)
"""

__version__ = "0.1.0"
__author__ = "macward"
