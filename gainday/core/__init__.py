"""Core engines: ledger replay, currency conversion, valuation, snapshots and quotas."""
