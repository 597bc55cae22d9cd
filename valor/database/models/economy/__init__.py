from .skill_auction import PlayerSkill, SkillAuction, SkillBid

__all__ = ["PlayerSkill", "SkillAuction", "SkillBid"]
