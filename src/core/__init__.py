"""
Core order model, engine payload registry, wire contracts and errors.

This module contains the protocol building blocks that are independent
of the relay network (connections, identity, publishing).
"""
