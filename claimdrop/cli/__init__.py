"""claimdrop command line interface"""
