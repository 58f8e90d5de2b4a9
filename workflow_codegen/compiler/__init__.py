"""
Compiler stages: parse, validate, linearize, assemble.
"""
