"""
SGP - Storage de arquivos (anexos e PDFs de termos)
Backends suportados: Supabase Storage, disco local
"""
from .base_storage import BaseStorage
from .local_storage import LocalStorage
from .supabase_storage import SupabaseStorage

# Registry de backends disponíveis
STORAGES = {
    'supabase': SupabaseStorage,
    'local': LocalStorage,
}


def criar_storage(config) -> BaseStorage:
    """Instancia o backend configurado em STORAGE_BACKEND."""
    nome = config.get('STORAGE_BACKEND', 'supabase')
    if nome not in STORAGES:
        raise ValueError(f"STORAGE_BACKEND desconhecido: {nome}. Use: {', '.join(STORAGES)}")
    return STORAGES[nome].from_config(config)


__all__ = [
    'BaseStorage', 'LocalStorage', 'SupabaseStorage',
    'STORAGES', 'criar_storage',
]
