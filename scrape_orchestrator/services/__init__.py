"""
Serviços do orquestrador: filas, reenqueue, proxies, estatísticas e catálogo.
"""
