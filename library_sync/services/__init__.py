"""
Services: gateway, memória local, reconciliação e assinantes.
"""
