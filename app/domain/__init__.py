"""Dashboard domains - calendar reconciliation and booking reports"""
