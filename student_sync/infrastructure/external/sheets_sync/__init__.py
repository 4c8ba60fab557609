"""
Pipeline de sincronización one-way: Google Sheets -> PostgreSQL (tabla students).

Este paquete está diseñado para ejecutarse como job (cron / task scheduler),
no como parte del request/response de una API.

Objetivos de diseño:
- Hard sync: la tabla destino refleja exactamente las filas válidas de la hoja
  (UPSERT de presentes + DELETE de ausentes).
- Idempotencia por clave: se puede ejecutar N veces con la misma hoja y el
  resultado es el mismo (register_no es la PK).
- Esquema explícito y tipado (StudentRecord), columnas desconocidas aparte.
- Errores de fila contenidos; errores de etapa abortan la corrida.
"""
