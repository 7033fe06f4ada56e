"""DiceIt: multiplayer dice-guess wager rounds, one active round per group."""
