"""suivi_client — REST collaborator for the dossier portal's backend API.

``BackendClient`` implements the results, document and circuit sources of
``suivi_engine`` on top of ``httpx.AsyncClient``.
"""

from suivi_client.client import BackendClient, unwrap_list

__all__ = ["BackendClient", "unwrap_list"]
