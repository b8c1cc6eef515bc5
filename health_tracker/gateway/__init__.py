"""Backend access: gateway contract, storage mapping and the SQL implementation"""
