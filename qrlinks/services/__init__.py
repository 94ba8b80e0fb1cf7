"""
Business logic of the QR links service.

Services depend on the store interfaces in qrlinks.db.stores and never on
sessions or HTTP objects; the API layer wires them per request.
"""
