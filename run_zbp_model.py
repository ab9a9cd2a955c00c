import numpy as np
import ZBPModel
import time
from thermodynamic_functions import calc_pres_from_height

# lower-level states on a small grid of temperatures and entrainment rates
Tl = np.linspace(295., 305., 5)[:, None] * np.ones((1, 3))
epsilon = np.array([0.5e-3, 1e-3, 2e-3])[None, :] * np.ones((5, 1))
pl = np.full_like(Tl, 1e5)

zm = ZBPModel.ZBPModel(z = [500., 5000.], entrainment_type = 'const')

stime = time.time()
ds = zm.main(pl, Tl, epsilon, PE = 0.3, batch_dims = ['Tl', 'epsilon'])
print(ds)
print(f'Time taken:{(time.time()-stime)/60 : .2f} minutes' )

# the same columns with pressure prescribed at every level from
# a hydrostatic environment with a 6.5 K/km lapse rate
Tenv = Tl[..., None] - 6.5e-3 * (zm.z - zm.z[0])
p_env = calc_pres_from_height(zm.z, Tenv, pl)

stime = time.time()
ds_env = zm.main(p_env, Tl, epsilon, PE = 0.3, batch_dims = ['Tl', 'epsilon'])
print(ds_env)
print(f'Time taken:{(time.time()-stime)/60 : .2f} minutes' )
