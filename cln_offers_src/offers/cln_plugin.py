from typing import Callable
from pyln.client import Plugin
import asyncio


class CLNPlugin:
    """Runs the pyln plugin in a thread, awaiting an instance returns once the plugin rpc is ready"""
    def __init__(self):
        self.plugin = Plugin()
        self.__task = None

    def __await__(self):
        async def __run():
            self.__task = asyncio.create_task(asyncio.to_thread(self.plugin.run))
            await asyncio.wait_for(self.__await_rpc(), timeout=50)
            return self
        return __run().__await__()

    async def __await_rpc(self):
        """Wait for the rpc to be ready, this will take quite different amounts of time depending on the environment"""
        while True:
            if self.plugin.rpc is not None:
                return
            if self.__task.done():
                raise Exception("Plugin failed to start, thread returned")
            await asyncio.sleep(0.5)

    async def wait_until_stopped(self) -> None:
        """Returns when CLN shuts the plugin down"""
        await self.__task

    def add_background_method(self, name: str, func: Callable, description: str) -> None:
        """Methods have to be added before the plugin is awaited, CLN reads them from the manifest"""
        if self.__task is not None:
            raise Exception(f"Cannot add method {name}, plugin already running")
        self.plugin.add_method(name, func, background=True, desc=description)
