"""Commitment-and-claim engine: enumeration, commitments, ledger, payout paths"""
