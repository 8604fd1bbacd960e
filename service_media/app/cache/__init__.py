"""
Status cache package.

A short-TTL, cache-aside layer in front of the record store. Backends:
``none`` (disabled), ``memory`` (in-process) and ``redis``.
"""
