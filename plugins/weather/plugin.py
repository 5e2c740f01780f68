"""Example plugin: answers "weather in <city>" whether or not the bot
is addressed, and adds a ``forecast`` command.

The answers are canned; point ``plugins.weather.reply`` at your own
text in settings.yaml.
"""

from apebot.plugin_base import ApePlugin, MessagePattern


class WeatherPlugin(ApePlugin):
    name = "weather"
    description = "Canned weather replies"
    version = "1.0.0"

    def commands(self):
        return {"forecast": self.handle_forecast}

    def message_patterns(self):
        return [
            MessagePattern(
                priority=10,
                pattern=r"^weather in (\w+)$",
                handler=self.handle_weather,
                description="weather in <city>",
            ),
        ]

    def help_lines(self):
        return ["forecast <city> - canned forecast", "weather in <city> - heard anywhere"]

    def _reply_for(self, city):
        template = self.ctx.get_config("reply", "It is sunny in {city}.")
        return template.replace("{city}", city)

    async def handle_weather(self, event, captures):
        # captures: [whole match, city]
        await event.reply(self._reply_for(captures[1]))

    async def handle_forecast(self, event, args):
        if not args:
            await event.reply("Usage: forecast <city>")
            return
        await event.reply(self._reply_for(args[0]))
