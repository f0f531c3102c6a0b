import typing

HospitalNumber = typing.NewType("HospitalNumber", str)

ModuleId = typing.NewType("ModuleId", str)
QuestionId = typing.NewType("QuestionId", str)
SessionId = typing.NewType("SessionId", str)
IsoTimestamp = typing.NewType("IsoTimestamp", str)
