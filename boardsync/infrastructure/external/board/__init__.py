"""
Integracion one-way con el board remoto (API GraphQL estilo Monday.com).

Expone el cliente HTTP y el proveedor de metadata (tipos de columna y
labels permitidos) que usa el validador de esquema.
"""
