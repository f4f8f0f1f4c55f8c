"""Back-office de concesionaria: inventario, ventas, clientes, finanzas y CRM."""

__version__ = "1.0.0"
