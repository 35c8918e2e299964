"""
SGP - Exceções de domínio
Cada exceção carrega o status HTTP usado pela camada de API.
"""


class ErroSGP(Exception):
    """Erro base do sistema."""
    status_code = 500

    def __init__(self, mensagem: str):
        super().__init__(mensagem)
        self.mensagem = mensagem


class NaoEncontrado(ErroSGP):
    """Registro consultado não existe."""
    status_code = 404


class ErroValidacao(ErroSGP):
    """Dados de entrada inválidos (campo obrigatório, formato, transição)."""
    status_code = 400


class ErroPersistencia(ErroSGP):
    """Falha no banco de dados."""
    status_code = 500


class ErroArmazenamento(ErroSGP):
    """Falha no storage de arquivos."""
    status_code = 500
