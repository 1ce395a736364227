import asyncio
from concurrent.futures import Future
from typing import Any, Awaitable, Callable, Optional

from .cln_logger import PluginLogger
from .cln_plugin import CLNPlugin
from .connection import ClnRpcConnection, ConnectionType, create_connection
from .error_channel import ConnectionErrors
from .models import CreatePayOfferOptions, CreateWithdrawOfferOptions, FetchInvoiceOptions, SendInvoiceOptions
from .offers import ClnOffers
from .plugin_config import PluginConfig


def _to_json(result: Any) -> Any:
    if result is None:
        return {}
    if isinstance(result, list):
        return {"offers": [item.to_dict() for item in result]}
    if isinstance(result, str):
        return {"invoice": result}
    return result.to_dict()


class CLNOffersProvider:
    """Exposes the offers operations of the node as plugin rpc methods"""
    def __init__(
        self,
        plugin_handler: Optional[CLNPlugin] = None,
        logger: Optional[PluginLogger] = None,
        config: Optional[PluginConfig] = None,
        connection: Optional[ClnRpcConnection] = None,
        offers: Optional[ClnOffers] = None,
        errors: Optional[ConnectionErrors] = None,
    ):
        self.plugin_handler = plugin_handler
        self.logger = logger
        self.config = config
        self.connection = connection
        self.offers = offers
        self.errors = errors
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    async def initialize(self):
        self._loop = asyncio.get_running_loop()

        # cln plugin handler, methods have to be known before the plugin starts
        self.plugin_handler = CLNPlugin()
        self.register_methods()
        await self.plugin_handler

        # logging to cln logs
        self.logger = PluginLogger("cln-offers", self.plugin_handler.plugin.log)

        # user config (from .env file or env)
        self.config = PluginConfig.from_env(logger=self.logger)

        self.errors = ConnectionErrors(logger=self.logger)
        self.connection = await create_connection(ConnectionType.PLUGIN,
                                                  logger=self.logger,
                                                  plugin=self.plugin_handler.plugin,
                                                  connection_id=self.config.connection_id,
                                                  timeout=self.config.rpc_timeout,
                                                  errors=self.errors)
        self.offers = ClnOffers(self.connection, logger=self.logger)
        self.logger.info("cln-offers initialized")

    async def run(self):
        if not self.is_initialized:
            await self.initialize()
        try:
            await self.plugin_handler.wait_until_stopped()
        finally:
            self.connection.close()

    def register_methods(self) -> None:
        add = self.plugin_handler.add_background_method

        def offers_list(request):
            self.submit(request, lambda: self.offers.get())

        def offers_createpay(request, description, label, amount=None, issuer=None, quantity_max=None,
                             expiry=None, single_use=None):
            options = CreatePayOfferOptions(description=description, label=label, amount=amount, issuer=issuer,
                                            quantity_max=quantity_max, expiry=expiry, single_use=single_use)
            self.submit(request, lambda: self.offers.create_pay(options))

        def offers_disablepay(request, offer_id):
            self.submit(request, lambda: self.offers.disable_pay(offer_id))

        def offers_createwithdraw(request, amount, description, label, issuer=None, expiry=None, single_use=None):
            options = CreateWithdrawOfferOptions(amount=amount, description=description, label=label,
                                                 issuer=issuer, expiry=expiry, single_use=single_use)
            self.submit(request, lambda: self.offers.create_withdraw(options))

        def offers_disablewithdraw(request, invreq_id):
            self.submit(request, lambda: self.offers.disable_withdraw(invreq_id))

        def offers_fetchinvoice(request, offer, amount=None, quantity=None, timeout=None, payer_note=None):
            options = FetchInvoiceOptions(offer=offer, amount=amount, quantity=quantity, timeout=timeout,
                                          payer_note=payer_note)
            self.submit(request, lambda: self.offers.fetch_invoice(options))

        def offers_sendinvoice(request, offer, label, amount=None, timeout=None, quantity=None):
            options = SendInvoiceOptions(offer=offer, label=label, amount=amount, timeout=timeout,
                                         quantity=quantity)
            self.submit(request, lambda: self.offers.send_invoice(options))

        def offers_payinvoice(request, bolt12):
            self.submit(request, lambda: self.offers.pay_invoice(bolt12))

        def offers_errors(request):
            if not self.is_initialized:
                return request.set_exception(Exception("cln-offers is not initialized yet"))
            request.set_result({"errors": [error.to_dict() for error in self.connection.errors.history]})

        add("offers-list", offers_list, "List bolt12 offers and invoice requests")
        add("offers-createpay", offers_createpay, "Create a bolt12 offer to get paid (amount in sats)")
        add("offers-disablepay", offers_disablepay, "Disable a bolt12 offer")
        add("offers-createwithdraw", offers_createwithdraw, "Create a bolt12 invoice request (amount in sats)")
        add("offers-disablewithdraw", offers_disablewithdraw, "Disable a bolt12 invoice request")
        add("offers-fetchinvoice", offers_fetchinvoice, "Fetch an invoice for a bolt12 offer")
        add("offers-sendinvoice", offers_sendinvoice, "Send an invoice for a bolt12 invoice request (amount in msats)")
        add("offers-payinvoice", offers_payinvoice, "Pay a bolt12 invoice")
        add("offers-errors", offers_errors, "Last errors of the offers connection")

    def submit(self, request, coro_factory: Callable[[], Awaitable[Any]]) -> None:
        """Called from the plugin thread, runs the coroutine on our loop and resolves the request with it"""
        if not self.is_initialized:
            request.set_exception(Exception("cln-offers is not initialized yet"))
            return
        future = asyncio.run_coroutine_threadsafe(coro_factory(), self._loop)
        future.add_done_callback(lambda done: self._resolve(request, done))

    def _resolve(self, request, future: Future) -> None:
        exception = future.exception()
        if exception is not None:
            request.set_exception(exception)
        else:
            request.set_result(_to_json(future.result()))

    @property
    def is_initialized(self) -> bool:
        if (self.plugin_handler
                and self.logger
                and self.config
                and self.connection
                and self.offers
                and self._loop):
            return True
        return False
