from valor.modules.pet.service import PetService

__all__ = ["PetService"]
