"""Registration cog - /register, /profile. Links a Discord account to a chat username for role DMs."""
from __future__ import annotations

import discord
from discord import app_commands

from bot.services.errors import GameError


def _services(interaction: discord.Interaction):
    return interaction.client.services


@app_commands.command(description="Register for stream Mafia games (links your chat username to this Discord account)")
@app_commands.describe(
    chat_username="Your username in the stream chat (the one you type !reg with)",
    nickname="Name shown in games",
)
async def register(interaction: discord.Interaction, chat_username: str, nickname: str) -> None:
    """Self-service registration. Roles are delivered to this Discord account by DM."""
    await interaction.response.defer(ephemeral=True)
    services = _services(interaction)
    try:
        player = await services.players.register_self(str(interaction.user.id), chat_username, nickname)
    except GameError as e:
        await interaction.followup.send(e.message, ephemeral=True)
        return

    await interaction.followup.send(
        f"You're registered as **{player.nick}** (chat: `{player.chat_id}`). "
        f"Type `{services.registration.command}` in the stream chat to join the queue. "
        "Keep your DMs open so the bot can send you your role.",
        ephemeral=True,
    )


@app_commands.command(description="View your registration and queue position")
async def profile(interaction: discord.Interaction) -> None:
    """Show the player record linked to this Discord account."""
    await interaction.response.defer(ephemeral=True)
    services = _services(interaction)

    player = await services.players.get_by_contact(str(interaction.user.id))
    if not player:
        await interaction.followup.send(
            "You haven't registered yet. Use `/register` to link your chat username.",
            ephemeral=True,
        )
        return

    position = await services.queue.position_of(player.id)
    if position is None:
        queue_line = f"Not queued. Type `{services.registration.command}` in the stream chat."
    else:
        size = await services.queue.count()
        queue_line = f"Position {position} of {size}"

    embed = discord.Embed(title="Your Profile", color=discord.Color.blue())
    embed.add_field(name="Nick", value=player.nick, inline=True)
    embed.add_field(name="Chat username", value=player.chat_id, inline=True)
    embed.add_field(name="Queue", value=queue_line, inline=False)
    await interaction.followup.send(embed=embed, ephemeral=True)
