"""
Taproot wallet: keys, UTXO validation, fees, transaction building and signing.
"""
