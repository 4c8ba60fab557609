"""
student_sync: job de sincronizacion Google Sheets -> PostgreSQL
para el registro de estudiantes.
"""

__version__ = "1.0.0"
