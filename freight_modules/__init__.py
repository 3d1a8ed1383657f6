"""
Freight ledger modules.

    ledger      Company-paid driver expenses and their recovery ledgers
    settlement  Driver settlement generation, commit and supersede
    ar          Invoice numbering, customer payments and AR aging
"""
