"""
The main entrypoint for the POCUS AI package.

This module contains the ``PocusAI`` Dash application, the composition root
that builds the shared stores and the model boundary once, and builds one
``clients.Client`` (identity, orchestrator, admin console) per browser tab.
"""

from typing import Optional

from dash import Dash

from . import admin, auth, clients, engine, layout, llm, storage, store, usage
from .config import Settings, configure_logging, get_settings


class PocusAI(Dash):
    """
    The POCUS clinical consultation application.

    Every collaborator can be injected; the defaults are built from
    :class:`~pocusai.config.Settings`.
    """

    def __init__(
        self,
        layout: Optional["layout.Layout"] = None,
        llm: Optional["llm.LLM"] = None,
        storage: Optional["storage.Storage"] = None,
        settings: Optional[Settings] = None,
        **kwargs,
    ) -> None:
        """
        Initialize the application and its repositories.

        Parameters
        ----------
        layout : layout.Layout, optional
            Layout builder for the Dash component tree.
            Defaults to layout.Bootstrap().
        llm : llm.LLM, optional
            Model boundary. Defaults to llm.Gemini() configured from settings.
        storage : storage.Storage, optional
            Durable key/value storage shared by every repository. Defaults to
            storage.File when ``settings.storage_dir`` is set, otherwise
            storage.InMemory.
        settings : Settings, optional
            Application settings. Defaults to get_settings().
        **kwargs
            Additional arguments passed to the Dash constructor.

        Raises
        ------
        ValueError
            If the layout is missing component IDs required by the callbacks.

        Examples
        --------
        >>> app = PocusAI(llm=llm.Echo())
        >>> app.run(debug=True)
        """
        self.settings = settings or get_settings()
        configure_logging(self.settings.log_level)

        layout_module = globals()["layout"]
        llm_module = globals()["llm"]
        storage_module = globals()["storage"]

        self.layout_builder = layout if layout is not None else layout_module.Bootstrap()
        self.llm = llm if llm is not None else llm_module.Gemini()

        if storage is not None:
            self.storage = storage
        elif self.settings.storage_dir:
            self.storage = storage_module.File(
                self.settings.storage_dir, prefix=self.settings.storage_prefix
            )
        else:
            self.storage = storage_module.InMemory(prefix=self.settings.storage_prefix)

        if "external_stylesheets" not in kwargs:
            kwargs["external_stylesheets"] = []
        kwargs["external_stylesheets"].extend(
            self.layout_builder.get_external_stylesheets()
        )

        if "external_scripts" not in kwargs:
            kwargs["external_scripts"] = []
        kwargs["external_scripts"].extend(self.layout_builder.get_external_scripts())

        kwargs.setdefault("title", self.settings.app_name)
        super().__init__(**kwargs)

        self.auth = auth.CredentialStore(
            self.storage,
            admin_username=self.settings.admin_username,
            admin_password=self.settings.admin_password,
            admin_email=self.settings.admin_email,
        )
        self.auth.bootstrap()
        self.usage = usage.UsageCounter(self.storage)
        self.clients = clients.ClientRegistry(self.build_client)

        self.layout_builder.validate(self.layout_builder.build_layout())
        # Served per page load so every browser gets fresh default tokens.
        self.layout = self.layout_builder.build_layout
        self._register_callbacks()

    def build_client(self, device_id: str) -> "clients.Client":
        """Builds the per-tab state for a browser identified by ``device_id``."""
        client_storage = self.storage.scoped(device_id)
        credentials = auth.CredentialStore(
            self.storage,
            admin_username=self.settings.admin_username,
            admin_password=self.settings.admin_password,
            admin_email=self.settings.admin_email,
            client_storage=client_storage,
        )
        sessions = store.SessionStore(client_storage)
        orchestrator = engine.Orchestrator(
            self.llm,
            sessions,
            credentials,
            usage=self.usage,
            language=self.settings.default_language,
            temperature=self.settings.temperature,
        )
        return clients.Client(
            device_id,
            auth=credentials,
            sessions=sessions,
            orchestrator=orchestrator,
            admin=admin.AdminConsole(credentials, self.usage),
        )

    def _register_callbacks(self) -> None:
        """Registers all the callbacks that drive the orchestrator."""
        from .callbacks import register_callbacks

        register_callbacks(self)
